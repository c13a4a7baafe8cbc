"""
Common utilities for groomnet.

- ID mapping between monkey names and networkit integer IDs
- Input validation for attribute tables and edge lists
- Exception hierarchy
- Logging configuration
"""

from .exceptions import (
    NetworkAnalysisError,
    ValidationError,
    DataFormatError,
    GraphConstructionError,
    ComputationError,
    DegenerateGraphError,
    ConvergenceError,
    ConfigurationError,
    ModelSpecificationError,
    validate_parameter,
    require_positive,
    check_convergence
)

from .id_mapper import IDMapper
from .validators import (
    validate_edgelist_dataframe,
    validate_attribute_dataframe
)

from .logging_config import (
    setup_logging,
    get_logger,
    configure_external_library_logging,
    log_function_entry,
    log_performance_metric,
    LoggingTimer,
    JSONFormatter
)
