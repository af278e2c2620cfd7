"""Result codes and their user-facing messages."""

CODE_OK = 0
CODE_VALIDATION_ERROR = 9001
CODE_EXPIRED = 9002
CODE_REQUEST_DATA_ERROR = 9003
CODE_UNDEFINED_REQUEST = 9004
CODE_REQUEST_TYPE_ERROR = 9005
CODE_SYSTEM_ERROR = 9901
CODE_INCORRECT_ACCESS = 9902

_KOR = {
    CODE_OK: "정상처리",
    CODE_VALIDATION_ERROR: "검증 오류",
    CODE_EXPIRED: "요청이 만료되었습니다",
    CODE_REQUEST_DATA_ERROR: "요청 데이타 오류",
    CODE_UNDEFINED_REQUEST: "정의되지 않은 요청",
    CODE_REQUEST_TYPE_ERROR: "요청 데이타 타입 오류",
    CODE_SYSTEM_ERROR: "시스템 오류",
    CODE_INCORRECT_ACCESS: "잘못된 접근입니다",
}

_ENG = {
    CODE_OK: "Processed",
    CODE_VALIDATION_ERROR: "Validation Error",
    CODE_EXPIRED: "Your request has expired",
    CODE_REQUEST_DATA_ERROR: "Request data error",
    CODE_UNDEFINED_REQUEST: "undefined request",
    CODE_REQUEST_TYPE_ERROR: "Request data type error",
    CODE_SYSTEM_ERROR: "System Error",
    CODE_INCORRECT_ACCESS: "Incorrect Access",
}


def get_error_message_kor(code):
    """Korean message for a result code."""
    return _KOR.get(code, "정의되지 않은 메세지")


def get_error_message_eng(code):
    """English message for a result code."""
    return _ENG.get(code, "undefined message")


def get_error_message(lang, code):
    """Message in Korean for lang "K", otherwise in English."""
    if lang == "K":
        return get_error_message_kor(code)
    return get_error_message_eng(code)


class RequestError(Exception):
    """A request failed with one of the result codes."""

    def __init__(self, code):
        super().__init__(get_error_message_eng(code))
        self.code = code

    def message(self, lang):
        return get_error_message(lang, self.code)