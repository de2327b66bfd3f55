"""Pydantic schemas for the PICTONET studio.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
RuntimeConfig : class
    Fully validated, frozen configuration for one invocation
GlobalConfig : class
    Studio configuration passed into every stage call
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
Row, Stage, StepStatus : classes
    Pipeline row model and its stage/status enums
"""

from pictonet.schemas.resolve import resolve_config, RuntimeConfig
from pictonet.schemas.config import GlobalConfig, GeoContext, SvgStyle
from pictonet.schemas.user import UserConfig
from pictonet.schemas.cli import CLIConfig
from pictonet.schemas.settings import StudioSettings, get_settings
from pictonet.schemas.analysis import AnalysisRecord, RawAnalysis, ParsedAnalysis
from pictonet.schemas.elements import ElementTree
from pictonet.schemas.evaluation import Evaluation, AXES
from pictonet.schemas.row import Row, Stage, StepStatus, GENERATION_STAGES

__all__ = [
    'resolve_config',
    'RuntimeConfig',
    'GlobalConfig',
    'GeoContext',
    'SvgStyle',
    'UserConfig',
    'CLIConfig',
    'StudioSettings',
    'get_settings',
    'AnalysisRecord',
    'RawAnalysis',
    'ParsedAnalysis',
    'ElementTree',
    'Evaluation',
    'AXES',
    'Row',
    'Stage',
    'StepStatus',
    'GENERATION_STAGES',
]
