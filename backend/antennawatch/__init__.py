"""Antennawatch: live antenna health feed over a Materialize TAIL."""
