# Copuright (c) 2011 Jyrki Pulliainen <jyrki@dywypi.org>
# Copyright (c) 2010 Inoi Oy
#
# Permission is hereby granted, free of charge, to any person
# obtaining a copy of this software and associated documentation
# files (the "Software"), to deal in the Software without
# restriction, including without limitation the rights to use, copy,
# modify, merge, publish, distribute, sublicense, and/or sell copies
# of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS
# BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN
# ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN
# CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""Body codecs used by the request dispatcher"""

import json

from divan.errors import MalformedResponse


class JsonCodec(object):
    content_type = 'application/json'

    def __init__(self, encoder=None):
        # None makes json fall back to json.JSONEncoder
        self.encoder = encoder

    def encode(self, value):
        return json.dumps(value, cls=self.encoder).encode('utf-8')

    def decode(self, body, status_code):
        try:
            return json.loads(body.decode('utf-8'))
        except ValueError:
            # UnicodeDecodeError is a ValueError as well
            raise MalformedResponse(status_code, body) from None


class RawCodec(object):
    """Pass bodies through untouched, for callers that want bytes"""
    content_type = 'application/octet-stream'

    def encode(self, value):
        if isinstance(value, str):
            return value.encode('utf-8')
        return bytes(value)

    def decode(self, body, status_code):
        return body
