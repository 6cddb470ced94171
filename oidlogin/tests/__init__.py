from unittest import defaultTestLoader


def suite():                            # pragma: no cover
    """ The complete suite of tests.
    """
    return defaultTestLoader.discover('oidlogin')
