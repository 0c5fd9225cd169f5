"""
Settings module initialization.
Automatically selects settings based on BOMGRAPH_ENV environment variable.
"""

import os

env = os.environ.get('BOMGRAPH_ENV', 'dev')

if env == 'prod':
    from .prod import *
else:
    from .dev import *
