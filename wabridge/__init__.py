# WhatsApp Send Bridge - HTTP to WhatsApp Web relay
# ==================================================
# Exposes a single HTTP endpoint that relays a text message or a file
# attachment to a phone number through a WhatsApp Web session.
#
# ARCHITECTURE LAYERS:
# - Presentation:   HTTP endpoint (web/) and process entry point (main.py)
# - Application:    Session lifecycle and graceful shutdown (application/)
# - Infrastructure: WhatsApp Web automation and configuration
#
# The session sits behind an abstract contract, so the Selenium backend
# can be swapped without touching the endpoint or the lifecycle code.
