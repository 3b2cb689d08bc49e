from . import base

for k, v in base.__dict__.items():
    if k.isupper():
        globals()[k] = v

# Local development: exports render inline unless a broker is running
DEBUG = True
_allowed = list(getattr(base, 'ALLOWED_HOSTS', []))
for h in ['127.0.0.1', 'localhost', 'testserver']:
    if h not in _allowed:
        _allowed.append(h)
ALLOWED_HOSTS = _allowed
CORS_ALLOWED_ORIGINS = base.CORS_ALLOWED_ORIGINS or ['http://localhost:5173', 'http://127.0.0.1:5173']
LOGGING = {
    **base.LOGGING,
    'loggers': {**base.LOGGING['loggers'], 'exports': {'handlers': ['console'], 'level': 'DEBUG', 'propagate': False}},
}
