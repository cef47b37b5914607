"""
linodepool: disposable test machines from a pool of leased Linodes.

Installs an image onto a powered-off Linode, boots it, and later removes
the installed disks and config so the machine can serve the next run.
"""

from .config import LinodeConfig
from .errors import FatalError, LinodeError
from .image import ImageID
from .provider import LinodeProvider, LinodeServer

__version__ = "0.1.0"

__all__ = [
    "FatalError",
    "ImageID",
    "LinodeConfig",
    "LinodeError",
    "LinodeProvider",
    "LinodeServer",
]
