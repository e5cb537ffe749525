import json
import numpy as np


class NumpyEncoder(json.JSONEncoder):
    """
    Handles serialization of NumPy types to JSON.
    Inactive search-space values are written as null.
    """
    def default(self, obj):
        # search_space depends on utils, so resolve the sentinel lazily
        from tunelab.search_space.parameters import INACTIVE

        if obj is INACTIVE:
            return None
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.bool_):
            return bool(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        return json.JSONEncoder.default(self, obj)
