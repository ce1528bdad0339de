"""
An SCGI client.

scgiclient frames a request according to the SCGI header encoding, connects to an SCGI
responder over TCP or a UNIX-domain socket, sends the request, and hands the raw
response bytes to a completion callback.

It is designed as a set of protocol pieces which are agnostic to the choice of I/O
framework in use (the framing module and the connection state machine), plus an I/O
adapter which connects them to a specific framework (the asyncio module).

Please see the individual modules for more details.
"""
