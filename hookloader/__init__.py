"""Hook-pipeline module loader.

Loads modules through normalize -> locate -> fetch -> translate -> instantiate,
with pluggable handlers for identifier maps, semver version resolution,
`argument!plugin` resources, bundles and predefined modules.
"""

from .config import LoaderConfig
from .config import ShimEntry
from .config import load_loader_config
from .engine import PythonScriptEngine
from .engine import ScriptEngine
from .errors import DefinitionConflictError
from .errors import FetchError
from .errors import FormatError
from .errors import LoadFailure
from .errors import LocateError
from .errors import PluginError
from .errors import ResolutionError
from .fetchers import Fetcher
from .fetchers import FileFetcher
from .fetchers import HttpFetcher
from .fetchers import MemoryFetcher
from .loader import Loader
from .logging_setup import init_json_logging
from .models import Instantiation
from .models import LoadRecord
from .models import Module
from .settings import SettingsManager

__all__ = [
    "Loader",
    "LoaderConfig",
    "ShimEntry",
    "load_loader_config",
    "SettingsManager",
    "init_json_logging",
    "LoadRecord",
    "Instantiation",
    "Module",
    "ScriptEngine",
    "PythonScriptEngine",
    "Fetcher",
    "MemoryFetcher",
    "FileFetcher",
    "HttpFetcher",
    "LoadFailure",
    "ResolutionError",
    "LocateError",
    "FetchError",
    "FormatError",
    "DefinitionConflictError",
    "PluginError",
]
