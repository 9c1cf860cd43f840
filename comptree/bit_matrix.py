"""
Stack-based bit matrix used between compression stages
"""

from .errors import InvariantError


class BitMatrix:
    """Collection of not-yet-consumed bits at each column

    Each column is a stack: the most recently inserted bit is popped first.
    """

    def __init__(self):
        self.columns = []

    def __len__(self):
        return len(self.columns)

    @property
    def count(self):
        """Total number of bits in the matrix"""
        return sum(len(col) for col in self.columns)

    def height(self, log2_weight):
        """Get height of the matrix at a given column (0 for missing columns)"""
        if 0 <= log2_weight < len(self.columns):
            return len(self.columns[log2_weight])
        return 0

    def heights(self):
        return [len(col) for col in self.columns]

    def max_height(self):
        """Get maximum column height"""
        return max((len(col) for col in self.columns), default=0)

    def insert(self, bit, log2_weight):
        """Push a bit onto a column, extending the matrix as needed"""
        while len(self.columns) <= log2_weight:
            self.columns.append([])
        self.columns[log2_weight].append(bit)

    def pop(self, log2_weight):
        """Remove and return the top bit of a column"""
        if self.height(log2_weight) == 0:
            raise InvariantError(
                f"bit matrix with {len(self.columns)} columns cannot pop bit from column {log2_weight}"
            )
        return self.columns[log2_weight].pop()

    def meets_goal(self, goal):
        """Check whether no column holds more than ``goal`` bits"""
        return all(len(col) <= goal for col in self.columns)

    def first_column_above(self, goal):
        """Index of the least significant column with more than ``goal`` bits"""
        for log2_weight, col in enumerate(self.columns):
            if len(col) > goal:
                return log2_weight
        return None

    def copy(self):
        """Create a shallow copy (bits are shared, stacks are not)"""
        new_matrix = BitMatrix()
        new_matrix.columns = [col.copy() for col in self.columns]
        return new_matrix

    def __repr__(self):
        return f"BitMatrix({self.heights()})"
