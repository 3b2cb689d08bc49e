"""Environment-aware settings loader.

Select settings module via DJANGO_ENV (dev, prod, test). Falls back to base.
Point DJANGO_SETTINGS_MODULE at 'app.settings' and let DJANGO_ENV decide.
"""
import os
import sys
from .base import *  # noqa: F401,F403

_env = os.getenv('DJANGO_ENV', '').lower()
if _env.startswith('prod'):
    from .prod import *  # noqa: F401,F403
elif _env.startswith('test') or 'pytest' in sys.modules:
    from .test import *  # noqa: F401,F403
elif _env.startswith('dev') or os.getenv('DEBUG', '0') == '1':
    from .dev import *  # noqa: F401,F403
# else: base only
