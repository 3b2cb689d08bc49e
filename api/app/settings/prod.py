from . import base

for k, v in base.__dict__.items():
    if k.isupper():
        globals()[k] = v

# Production overrides
DEBUG = False
EXPORTS_ASYNC = base.EXPORTS_ASYNC or bool(base.CELERY_BROKER_URL)
