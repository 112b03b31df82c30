"""
minem package
-------------
Command-line manager for a Minecraft server: scaffolds minem.json, downloads
and verifies server jars from the Mojang version manifest, starts the server
with java, and edits server.properties.
"""

__version__ = "1.2.0"
