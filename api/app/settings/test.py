from . import base

for k, v in base.__dict__.items():
    if k.isupper():
        globals()[k] = v

# Test overrides (executed when DJANGO_ENV=test or under pytest)
DEBUG = True
CELERY_TASK_ALWAYS_EAGER = True  # ensure tasks run inline for assertions
EXPORTS_ASYNC = False
STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}
PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
LOGGING = {
    **base.LOGGING,
    'root': {'handlers': ['console'], 'level': 'WARNING'},
    'loggers': {**base.LOGGING['loggers'], 'exports': {'handlers': ['console'], 'level': 'WARNING', 'propagate': False}},
}
# Throttle counters persist in the process-wide cache across test cases
REST_FRAMEWORK = {**base.REST_FRAMEWORK, 'DEFAULT_THROTTLE_CLASSES': []}
