"""Game session core: randomizer, store adapter, challenge engine,
placement scoring, timers, broadcast gateway and the session controller.

HTTP routes and socket handlers only talk to ``SessionController``; the
rest of this package has no knowledge of the transport.
"""
