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

"""Status table and error types for divan"""

from types import MappingProxyType

# Outcome tags
OK = 'ok'
CREATED = 'created'
ACCEPTED = 'accepted'
BAD_REQUEST = 'bad_request'
UNAUTHORIZED = 'unauthorized'
FORBIDDEN = 'forbidden'
NOT_FOUND = 'not_found'
CONFLICT = 'conflict'
PRECONDITION_FAILED = 'precondition_failed'
INTERNAL_SERVER_ERROR = 'internal_server_error'

STATUS_TABLE = MappingProxyType({
    200: OK,
    201: CREATED,
    202: ACCEPTED,
    400: BAD_REQUEST,
    401: UNAUTHORIZED,
    403: FORBIDDEN,
    404: NOT_FOUND,
    409: CONFLICT,
    412: PRECONDITION_FAILED,
    500: INTERNAL_SERVER_ERROR,
    })

# Error numbers carried by the exceptions below. HTTP derived ones
# reuse the status code, the rest are local.
UNEXPECTED_RESPONSE = 1
MALFORMED_RESPONSE = 2
INVALID_NAME = 51
DATABASE_NOT_FOUND = 404
DOCUMENT_NOT_FOUND = 404
DOCUMENT_CONFLICT = 409
DATABASE_ALREADY_EXISTS = 412


class UnknownStatus(LookupError):
    """
    The server answered with a status code missing from STATUS_TABLE.

    This is a compatibility defect in the table, not a runtime
    condition, so it is kept outside of the DivanError family.
    """
    def __init__(self, code):
        self.code = code
        super(UnknownStatus, self).__init__(
            'Unknown HTTP status code: %d' % code)


def resolve_status(code):
    try:
        return STATUS_TABLE[code]
    except KeyError:
        raise UnknownStatus(code) from None


class DivanError(Exception):
    """Common base for every error a divan operation raises"""
    errno = None

    @property
    def msg(self):
        return self.args[0] if self.args else ''


class UnexpectedResponse(DivanError):
    errno = UNEXPECTED_RESPONSE

    def __init__(self, status_code, response):
        self.status_code = status_code
        self.response = response
        super(UnexpectedResponse, self).__init__(
            'CouchDB reported an unexpected status: %d' % status_code)


class MalformedResponse(DivanError):
    """The response body could not be decoded by the codec"""
    errno = MALFORMED_RESPONSE

    def __init__(self, status_code, body):
        self.status_code = status_code
        self.body = body
        super(MalformedResponse, self).__init__(
            'Unable to decode response body (status %d): %r'
            % (status_code, body[:64]))


class InvalidName(DivanError):
    """
    The server refused a database or document name. This is an input
    error on the caller's side, unlike the not found/exists errors.
    """
    errno = INVALID_NAME

    def __init__(self, name, uri):
        self.name = name
        self.uri = uri
        super(InvalidName, self).__init__('Invalid name: %r' % name)


class DatabaseNotFound(DivanError):
    errno = DATABASE_NOT_FOUND

    def __init__(self, uri):
        self.uri = uri
        super(DatabaseNotFound, self).__init__(
            'Database not found: %s' % uri)


class DatabaseAlreadyExists(DivanError):
    errno = DATABASE_ALREADY_EXISTS

    def __init__(self, uri):
        self.uri = uri
        super(DatabaseAlreadyExists, self).__init__(
            'Database already exists: %s' % uri)


class DocumentNotFound(DivanError):
    errno = DOCUMENT_NOT_FOUND

    def __init__(self, id, database):
        self.id = id
        self.database = database
        super(DocumentNotFound, self).__init__(
            'Document not found: %r in %s' % (id, database))


class DocumentConflict(DivanError):
    errno = DOCUMENT_CONFLICT

    def __init__(self, document, id):
        self.document = document
        self.id = id
        super(DocumentConflict, self).__init__(
            'Document update conflict: %r' % id)
