"""Exit codes used by pipeline stages and the shell loop."""

EXIT_CODE_SUCCESS = 0
EXIT_CODE_GENERAL_ERROR = 1
EXIT_CODE_USAGE_ERROR = 2
EXIT_CODE_CANNOT_EXECUTE = 126
EXIT_CODE_COMMAND_NOT_FOUND = 127
EXIT_CODE_INTERRUPTED = 130
# 128 + SIGPIPE: the stage stopped because its reader went away
EXIT_CODE_SIGPIPE = 141
