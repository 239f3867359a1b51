class CalendarError(ValueError):
    pass


class InvalidRange(CalendarError):
    pass


class InvalidDate(CalendarError):
    pass


class AmbiguousOverride(CalendarError):
    pass


class InvalidDayType(CalendarError):
    pass
