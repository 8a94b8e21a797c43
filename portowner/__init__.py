from .errors import ConfigError, EnumerationError
from .models import (
    UNKNOWN, Family, FilterMiss, OwnershipRecord, ProcessRecord, Proto,
    SocketRecord, TcpState,
)

__version__ = "0.3.0"
