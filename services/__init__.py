"""
Services package: stateful helpers behind the HTTP surface (native extensions, log file access).
"""
