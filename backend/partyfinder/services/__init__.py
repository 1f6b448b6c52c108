"""Party finder services: the party state machine, persistence, fan-out and
session bookkeeping.

Nothing in here knows about HTTP or Socket.IO requests; routes and socket
handlers reach these objects through ``current_services()``.
"""
