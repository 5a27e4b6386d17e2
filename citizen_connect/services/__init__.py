"""
Services layer - business logic lives here, routes only translate HTTP.
"""
