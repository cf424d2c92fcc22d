"""
Attaches authenticated identities to requests.

:mod:`.tokens` converts profiles to and from their stored and signed forms;
:mod:`.providers` decides, per request, which profiles the caller holds.
"""
