"""
Utility package setup.

Enables pandas Copy-on-Write globally so task views selected by row id
never silently duplicate the underlying table.
"""

import pandas as pd

# pandas 3 always copies on write and deprecates the option
if int(pd.__version__.split('.')[0]) < 3:
    pd.options.mode.copy_on_write = True
