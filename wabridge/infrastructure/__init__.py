# Infrastructure Layer
# ====================
# Contains all external service integrations:
# - whatsapp/: Selenium-based WhatsApp Web session
# - config/: Environment and settings management
#
# This layer can be replaced entirely without affecting the application layer.
