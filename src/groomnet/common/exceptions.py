"""
Exception hierarchy for the groomnet grooming-network analysis package.

Every failure the package reports derives from ``NetworkAnalysisError`` so a
caller can catch all library errors with one clause, while the subclasses
separate bad input data from degenerate graphs and from estimators that did
not converge.
"""

from typing import Dict, Any, Optional, List, Union
import traceback


class NetworkAnalysisError(Exception):
    """
    Base exception for all groomnet errors.

    Parameters
    ----------
    message : str
        Human-readable error message describing what went wrong
    details : Dict[str, Any], optional
        Structured information about the error for programmatic handling
    cause : Exception, optional
        The underlying exception (chained as ``__cause__``)
    context : Dict[str, Any], optional
        Context about the operation that failed

    Examples
    --------
    >>> raise NetworkAnalysisError("Edge table could not be processed")
    >>> raise NetworkAnalysisError(
    ...     "Graph too small",
    ...     details={"nodes": 1, "required": 2}
    ... )
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        self.message = message
        self.details = details or {}
        self.cause = cause
        self.context = context or {}

        full_message = message

        if self.details:
            detail_parts = []
            for key, value in self.details.items():
                if isinstance(value, (list, dict)) and len(str(value)) > 100:
                    detail_parts.append(f"{key}=<{type(value).__name__} with {len(value)} items>")
                else:
                    detail_parts.append(f"{key}={value}")
            full_message += f" (Details: {', '.join(detail_parts)})"

        if self.context:
            context_parts = [f"{k}={v}" for k, v in self.context.items()]
            full_message += f" (Context: {', '.join(context_parts)})"

        super().__init__(full_message)

        if cause is not None:
            self.__cause__ = cause

    def add_context(self, **kwargs: Any) -> 'NetworkAnalysisError':
        """Add context to the exception and return it for chaining."""
        self.context.update(kwargs)
        return self

    def get_debug_info(self) -> Dict[str, Any]:
        """
        Get debugging information as a dictionary.

        Returns
        -------
        Dict[str, Any]
            Exception type, message, details, context, cause and traceback
        """
        return {
            "exception_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
            "traceback": traceback.format_exc() if self.__traceback__ else None
        }


class ValidationError(NetworkAnalysisError):
    """
    Exception raised when input tables or arguments fail validation.

    Raised before any computation starts: missing columns, null identifiers,
    duplicated monkey names, grooming observations naming unknown monkeys.

    Parameters
    ----------
    message : str
        Description of the validation failure
    field : str, optional
        Column or argument that failed validation
    value : Any, optional
        The offending value
    expected : str, optional
        Description of what was expected
    details : Dict[str, Any], optional
        Additional details

    Examples
    --------
    >>> raise ValidationError("Edge references unknown monkey", field="target", value="Zed")
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> None:
        self.field = field
        self.value = value
        self.expected = expected

        enhanced_details = details or {}
        if field is not None:
            enhanced_details["field"] = field
        if value is not None:
            enhanced_details["invalid_value"] = value
        if expected is not None:
            enhanced_details["expected"] = expected

        if field:
            enhanced_message = f"Validation error in field '{field}': {message}"
        else:
            enhanced_message = f"Validation error: {message}"

        super().__init__(enhanced_message, details=enhanced_details, **kwargs)


class DataFormatError(ValidationError):
    """
    Exception raised when an input file cannot be read or parsed.

    Parameters
    ----------
    message : str
        Description of the format error
    format_type : str, optional
        Expected format (e.g. "CSV", "DataFrame")
    file_path : str, optional
        Path to the problematic file
    """

    def __init__(
        self,
        message: str,
        format_type: Optional[str] = None,
        file_path: Optional[str] = None,
        **kwargs
    ) -> None:
        details = kwargs.pop("details", None) or {}
        if format_type:
            details["format_type"] = format_type
        if file_path:
            details["file_path"] = file_path

        super().__init__(message, details=details, **kwargs)


class GraphConstructionError(NetworkAnalysisError):
    """
    Exception raised while building or slicing a grooming graph.

    Parameters
    ----------
    message : str
        Description of the failure
    graph_type : str, optional
        Kind of graph being built (e.g. "directed", "induced_subgraph")
    node_count : int, optional
        Number of nodes at the time of failure
    edge_count : int, optional
        Number of edges processed at the time of failure
    operation : str, optional
        Operation that failed (e.g. "add_edges")
    """

    def __init__(
        self,
        message: str,
        graph_type: Optional[str] = None,
        node_count: Optional[int] = None,
        edge_count: Optional[int] = None,
        operation: Optional[str] = None,
        **kwargs
    ) -> None:
        self.graph_type = graph_type
        self.node_count = node_count
        self.edge_count = edge_count
        self.operation = operation

        context = {}
        if graph_type:
            context["graph_type"] = graph_type
        if node_count is not None:
            context["node_count"] = node_count
        if edge_count is not None:
            context["edge_count"] = edge_count
        if operation:
            context["operation"] = operation

        super().__init__(message, context=context, **kwargs)


class ComputationError(NetworkAnalysisError):
    """
    Exception raised when a statistic or estimator fails numerically.

    Parameters
    ----------
    message : str
        Description of the failure
    operation : str, optional
        The operation that failed
    error_type : str, optional
        Kind of failure (e.g. "numerical", "degenerate")
    resource_info : Dict[str, Any], optional
        Graph size information at the time of failure
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        error_type: Optional[str] = None,
        resource_info: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> None:
        self.operation = operation
        self.error_type = error_type
        self.resource_info = resource_info or {}

        context = {}
        if operation:
            context["operation"] = operation
        if error_type:
            context["error_type"] = error_type

        details = kwargs.pop("details", None) or {}
        details.update(self.resource_info)

        super().__init__(message, details=details, context=context, **kwargs)


class DegenerateGraphError(ComputationError):
    """
    Exception raised when a graph is too small or disconnected for a measure.

    Eigenvector centrality on a disconnected graph has no unique solution, so
    rather than returning a misleading number the computation fails with this
    error unless the caller explicitly asks for the largest-component
    restriction.

    Examples
    --------
    >>> raise DegenerateGraphError(
    ...     "Symmetrized graph has 2 components",
    ...     operation="eigenvector_centrality",
    ...     resource_info={"components": 2}
    ... )
    """

    def __init__(self, message: str, **kwargs) -> None:
        kwargs.setdefault("error_type", "degenerate")
        super().__init__(message, **kwargs)


class ConvergenceError(NetworkAnalysisError):
    """
    Exception raised when an iterative estimator fails to converge.

    Used by the ERGM Newton-Raphson fit and the SBM variational EM.

    Parameters
    ----------
    message : str
        Description of the convergence failure
    algorithm : str, optional
        Name of the estimator
    iterations : int, optional
        Iterations completed
    max_iterations : int, optional
        Iteration limit
    final_change : float, optional
        Last observed change
    threshold : float, optional
        Tolerance that was not met
    """

    def __init__(
        self,
        message: str,
        algorithm: Optional[str] = None,
        iterations: Optional[int] = None,
        max_iterations: Optional[int] = None,
        final_change: Optional[float] = None,
        threshold: Optional[float] = None,
        **kwargs
    ) -> None:
        self.algorithm = algorithm
        self.iterations = iterations
        self.max_iterations = max_iterations
        self.final_change = final_change
        self.threshold = threshold

        details = kwargs.pop("details", None) or {}
        if algorithm:
            details["algorithm"] = algorithm
        if iterations is not None:
            details["iterations_completed"] = iterations
        if max_iterations is not None:
            details["max_iterations"] = max_iterations
        if final_change is not None:
            details["final_change"] = final_change
        if threshold is not None:
            details["convergence_threshold"] = threshold

        super().__init__(message, details=details, **kwargs)


class ConfigurationError(NetworkAnalysisError):
    """
    Exception raised for invalid parameter values or combinations.

    Parameters
    ----------
    message : str
        Description of the configuration error
    parameter : str, optional
        Name of the problematic parameter
    value : Any, optional
        The invalid value
    valid_options : List[Any], optional
        Valid options for the parameter
    function : str, optional
        Function where the error occurred
    """

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
        value: Optional[Any] = None,
        valid_options: Optional[List[Any]] = None,
        function: Optional[str] = None,
        **kwargs
    ) -> None:
        self.parameter = parameter
        self.value = value
        self.valid_options = valid_options
        self.function = function

        details = kwargs.pop("details", None) or {}
        if parameter:
            details["parameter"] = parameter
        if value is not None:
            details["invalid_value"] = value
        if valid_options:
            details["valid_options"] = valid_options
        if function:
            details["function"] = function

        enhanced_message = message
        if parameter and valid_options:
            enhanced_message += f". Valid options for '{parameter}': {valid_options}"

        super().__init__(enhanced_message, details=details, **kwargs)


class ModelSpecificationError(ConfigurationError):
    """
    Exception raised for an invalid ERGM term specification.

    Raised when a term is constructed with bad arguments, when a term list is
    empty or repeats a term, or when a term names a covariate (or level) that
    the network does not carry.

    Examples
    --------
    >>> raise ModelSpecificationError(
    ...     "Unknown covariate 'Colour'",
    ...     parameter="attribute",
    ...     value="Colour",
    ...     valid_options=["Age", "Gender", "SleepLoc"]
    ... )
    """


def validate_parameter(
    value: Any,
    valid_options: List[Any],
    parameter_name: str,
    function_name: Optional[str] = None
) -> None:
    """
    Validate that a parameter value is one of the valid options.

    Raises
    ------
    ConfigurationError
        If value is not in valid_options
    """
    if value not in valid_options:
        raise ConfigurationError(
            f"Invalid value for parameter '{parameter_name}': {value}",
            parameter=parameter_name,
            value=value,
            valid_options=valid_options,
            function=function_name
        )


def require_positive(
    value: Union[int, float],
    parameter_name: str,
    allow_zero: bool = False
) -> None:
    """
    Validate that a numeric parameter is positive (or non-negative).

    Raises
    ------
    ConfigurationError
        If the constraint is violated
    """
    if allow_zero and value < 0:
        raise ConfigurationError(
            f"Parameter '{parameter_name}' must be non-negative, got {value}",
            parameter=parameter_name,
            value=value
        )
    elif not allow_zero and value <= 0:
        raise ConfigurationError(
            f"Parameter '{parameter_name}' must be positive, got {value}",
            parameter=parameter_name,
            value=value
        )


def check_convergence(
    change: float,
    threshold: float,
    iteration: int,
    max_iterations: int,
    algorithm: str = "iterative algorithm"
) -> None:
    """
    Raise ConvergenceError if the iteration budget is spent without converging.

    Raises
    ------
    ConvergenceError
        If iteration >= max_iterations and change > threshold
    """
    if iteration >= max_iterations and change > threshold:
        raise ConvergenceError(
            f"{algorithm} failed to converge within {max_iterations} iterations",
            algorithm=algorithm,
            iterations=iteration,
            max_iterations=max_iterations,
            final_change=change,
            threshold=threshold
        )
