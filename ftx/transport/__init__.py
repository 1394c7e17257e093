"""TLS setup, frame-oriented connections, and the sending client and receiving server."""