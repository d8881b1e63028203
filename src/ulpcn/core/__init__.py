"""
Core processing module for ulpcn.

Shared functionality used by the CLI commands and by library callers.

Submodules:
    - logging: Standardized logging configuration
    - genome / intervals: Chromosome naming and interval algebra
    - wig: Fixed-step wig reader
    - readcounts: Read-count assembly and region filters
    - bias_correction: GC / mappability / replication-timing correction
    - sex_inference: Sample sex from chrX and chrY
    - normalization: Matched-normal and panel-of-normals normalization
    - integer_cn: Integer copy-number correction
    - model_selection: BIC scoring of HMM restarts
"""

from .logging import get_logger, set_verbose
from .config import CopyNumberParams, ReadCountParams
from .models import Gender, SampleContext
from . import bias_correction
from . import readcounts
from . import sex_inference
from . import normalization
from . import integer_cn
from . import model_selection

__all__ = [
    'get_logger',
    'set_verbose',
    'CopyNumberParams',
    'ReadCountParams',
    'Gender',
    'SampleContext',
    'bias_correction',
    'readcounts',
    'sex_inference',
    'normalization',
    'integer_cn',
    'model_selection',
]
