from .core import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    SchedulerSettings,
    SettlementSettings,
    StakeSettings,
    Settings,
    load_settings,
    sanitize_dict,
    _project_root,
    _data_dir,
)

__all__ = [
    "DatabaseSettings",
    "LedgerSettings",
    "LoggingSettings",
    "SchedulerSettings",
    "SettlementSettings",
    "StakeSettings",
    "Settings",
    "load_settings",
    "sanitize_dict",
    "_project_root",
    "_data_dir",
]
