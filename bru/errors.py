# bru/errors.py
# One error kind for the whole engine: a message plus the byte offset at
# which it was detected (number of input bytes consumed, or for the encoder
# the number of output bytes written so far).


class BruError(Exception):
    def __init__(self, msg: str, offset: int = 0):
        super().__init__(msg)
        self.msg = msg
        self.offset = offset

    def __str__(self) -> str:
        return self.msg
