# Core infrastructure: config, errors, middleware
