"""
Takeout TimeFix

Restores capture timestamps for an exported photo/video archive, merges
files that were exported several times under different albums, and moves
everything into a date-structured output folder.
"""

__version__ = "1.0.0"
__author__ = "Homelab Team"

from .config import Config, OrganizationMode, ProcessingConfig
from .duplicates import ContentHasher, DuplicateConsolidator
from .errors import ErrorCategory, ErrorLog, ErrorSeverity, TimeFixError
from .models import AccuracyRank, MediaItem, OrganizedFile
from .mover import Mover
from .organizer import OrganizationPlanner
from .pipeline import PipelineOrchestrator, ProcessingResult
from .reporter import RunLogWriter, generate_summary_report
from .resolver import TimestampResolver
from .scanner import MediaScanner

__all__ = [
    'Config',
    'OrganizationMode',
    'ProcessingConfig',
    'ContentHasher',
    'DuplicateConsolidator',
    'ErrorCategory',
    'ErrorLog',
    'ErrorSeverity',
    'TimeFixError',
    'AccuracyRank',
    'MediaItem',
    'OrganizedFile',
    'Mover',
    'OrganizationPlanner',
    'PipelineOrchestrator',
    'ProcessingResult',
    'RunLogWriter',
    'generate_summary_report',
    'TimestampResolver',
    'MediaScanner',
]
