class RelayError(Exception):
    """
    A common superclass for all
    exceptions regarding ircrelay.
    """
    pass

# == Configuration errors ==

class ConfigError(RelayError):
    """
    Raised when the bridge configuration is unreadable,
    malformed, or otherwise unusable. Always fatal at
    startup.
    """
    pass

class TemplateSyntaxError(ConfigError):
    """
    Raised when a configured format string
    can not be compiled.
    """
    pass

# == Runtime errors ==

class TemplateRenderError(RelayError):
    """
    Raised when a compiled template can not be rendered
    against a Message, e.g. because it references an
    event argument the Message lacks.
    """
    pass

class RelayConnectionError(RelayError):
    """
    A common superclass for all exceptions
    involving a network connection.
    """
    pass

class ConnectionFailedError(RelayConnectionError):
    """
    Raised when a connection to a network
    can not be established.
    """
    pass

class ConnectionLostError(RelayConnectionError):
    """
    Raised when an established connection is lost
    and reconnecting is disabled.
    """
    pass
