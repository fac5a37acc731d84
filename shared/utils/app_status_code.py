class AppStatusCode:
    # 1xx - success
    DATA_RETRIEVED_SUCCESSFULLY = "100"
    OPERATION_SUCCESSFUL = "101"

    # 2xx - authentication / authorization
    AUTHENTICATION_TOKEN_INVALID = "201"
    AUTHENTICATION_TOKEN_EXPIRED = "202"
    UNAUTHORIZED_ACTION = "203"

    # 3xx - input
    INVALID_INPUT = "301"
    REQUIRED_VALIDATION_ERROR = "302"

    # 4xx - domain
    DATA_NOT_FOUND = "401"
    DUPLICATE_ADD_ERROR = "402"
    INVALID_STATUS_TRANSITION = "403"

    # 5xx - operation
    OPERATION_FAILED = "500"
    OPERATION_ERROR = "501"
    RESOURCE_BUSY = "503"
