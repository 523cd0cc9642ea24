"""
ews_contact_sync.sync - Contact distribution module

Contains the contact models, photo processing, folder management and the
sync engine.
"""
