"""
Error types raised during compressor tree generation
"""


class CompressorTreeError(Exception):
    """Base class for all generation errors"""


class ConfigurationError(CompressorTreeError, ValueError):
    """Invalid generation parameters, reported before scheduling starts"""


class SchedulingError(CompressorTreeError):
    """No counter in the active catalog fits the current column"""

    def __init__(self, column, height, goal):
        self.column = column
        self.height = height
        self.goal = goal
        super().__init__(
            f"cannot place a counter in column {column} with {height} bits "
            f"(compression goal {goal})"
        )


class InvariantError(CompressorTreeError, AssertionError):
    """Bit accounting went wrong, which indicates a catalog bug"""
