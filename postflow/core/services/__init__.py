# postflow - Core Services
# Lifecycle side effects for posts; dependencies arrive through ports
