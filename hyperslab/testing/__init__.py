from hyperslab.testing.utils import expected_selection, traverse

# region strategies need hypothesis, import them from hyperslab.testing.strategies

__all__ = ["expected_selection", "traverse"]
