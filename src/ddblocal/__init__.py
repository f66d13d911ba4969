from .client import Boto3ClientFactory, ClientFactory, ClientFactoryFunc
from .config.loader import load_settings
from .config.models import Settings
from .emulator import (
    Emulator,
    EmulatorOption,
    custom_client_factory,
    custom_jar_path,
    custom_lib_path,
    custom_name_generator,
    custom_port,
    custom_presence_detector,
    custom_process_supervisor,
    custom_settings,
    prepare_definition,
)
from .errors import (
    ClientInitError,
    DDBLocalError,
    EmulatorStartError,
    EmulatorTerminateError,
    TableError,
)
from .names import NameGenerator, NameGeneratorFunc, RandomNameGenerator
from .presence import HttpPresenceDetector, PresenceDetector, PresenceDetectorFunc
from .process import ProcessSupervisor, SubprocessSupervisor

__all__ = [
    "Boto3ClientFactory",
    "ClientFactory",
    "ClientFactoryFunc",
    "ClientInitError",
    "DDBLocalError",
    "Emulator",
    "EmulatorOption",
    "EmulatorStartError",
    "EmulatorTerminateError",
    "HttpPresenceDetector",
    "NameGenerator",
    "NameGeneratorFunc",
    "PresenceDetector",
    "PresenceDetectorFunc",
    "ProcessSupervisor",
    "RandomNameGenerator",
    "Settings",
    "SubprocessSupervisor",
    "TableError",
    "custom_client_factory",
    "custom_jar_path",
    "custom_lib_path",
    "custom_name_generator",
    "custom_port",
    "custom_presence_detector",
    "custom_process_supervisor",
    "custom_settings",
    "load_settings",
    "prepare_definition",
]
