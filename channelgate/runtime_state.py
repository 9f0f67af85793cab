from dataclasses import dataclass
from typing import Callable, Any


@dataclass
class ExportState:
    logger: Any
    get_db_connection: Callable[[], Any]
    getSettings: Callable[[], Any]
    clock: Callable[[], Any]
    playlist_cache: Any
    epg_cache: Any


@dataclass
class ManagementState:
    logger: Any
    get_db_connection: Callable[[], Any]
    getSettings: Callable[[], Any]
    clock: Callable[[], Any]
    authenticate: Callable[..., Any]


@dataclass
class AuthState:
    logger: Any
    get_db_connection: Callable[[], Any]
    getSettings: Callable[[], Any]


@dataclass
class RuntimeState:
    logger: Any
    exports: ExportState
    management: ManagementState
    auth: AuthState
