FRIENDLY_MESSAGES = {
    "CircuitOpenError": "This feature is temporarily unavailable. Please try again shortly.",
    "ConnectionError": "Unable to connect to a required service. Please try again later.",
    "TimeoutError": "The request took too long. Please try again later.",
    "IntegrityError": "That change conflicts with existing data.",
    "DatabaseError": "Temporary issue while accessing data. Please try again shortly.",
    "OperationalError": "Temporary issue while accessing data. Please try again shortly.",
    "ValueError": "Invalid data received. Please check your input and try again.",
    "PermissionError": "You don't have permission to perform this action.",
}


def get_friendly_message(error: Exception) -> str:
    for cls in type(error).__mro__:
        if cls.__name__ in FRIENDLY_MESSAGES:
            return FRIENDLY_MESSAGES[cls.__name__]
    return "Something went wrong on our end. Please try again."
