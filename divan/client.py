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

"""Blocking CouchDB client"""

import collections.abc
import json
import logging
from types import MappingProxyType
from urllib.parse import quote, unquote, urlencode, urlparse

from tornado.httpclient import HTTPClient, HTTPRequest
from tornado.httputil import HTTPHeaders

from divan.codec import JsonCodec
from divan.errors import (
    OK,
    CREATED,
    ACCEPTED,
    BAD_REQUEST,
    NOT_FOUND,
    CONFLICT,
    PRECONDITION_FAILED,
    INTERNAL_SERVER_ERROR,
    resolve_status,
    UnexpectedResponse,
    InvalidName,
    DatabaseNotFound,
    DatabaseAlreadyExists,
    DocumentNotFound,
    DocumentConflict,
    )

__all__ = [
    'from_uri',
    'route',
    'Response',
    'Server',
    'Database',
    'Document',
    'ChangesResult',
    'BulkError',
    'BulkObject',
    'BulkResult',
    'ViewResult',
    ]

log = logging.getLogger('divan')

DEFAULT_PORT = 5984


def from_uri(uri, codec=None, fetch_args=None):
    p = urlparse(uri)
    if p.params or p.query or p.fragment:
        raise ValueError(
            'Invalid database address: %s (extra query params)' % uri)
    if p.scheme != 'http':
        raise ValueError(
            'Invalid database address: %s (only http:// is supported)' % uri)

    db_name = unquote(p.path.lstrip('/').rstrip('/'))
    if not db_name:
        raise ValueError(
            'Invalid database address: %s (no database name)' % uri)

    server = Server(
        p.hostname or 'localhost',
        p.port or DEFAULT_PORT,
        username=unquote(p.username) if p.username else None,
        password=unquote(p.password) if p.password else None,
        codec=codec,
        fetch_args=fetch_args,
        )
    return Database(server, db_name)


def _jsonize_params(params):
    result = {}
    for key, value in params.items():
        result[key] = json.dumps(value)
    return result


def _plain_params(params):
    result = {}
    for key, value in params.items():
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        result[key] = value
    return result


def _content(response):
    return response.content


def _nothing(response):
    return None


def _raiser(error, *args):
    """Build an outcome handler raising `error(*args)`"""
    def _really_raise(response):
        raise error(*args)
    return _really_raise


def _illegal_name(name, uri):
    """Outcome entry for a name the server refuses to handle"""
    return {
        (BAD_REQUEST, INTERNAL_SERVER_ERROR): _raiser(InvalidName, name, uri),
        }


def _reserved(key):
    return isinstance(key, str) and key.startswith('_')


class Response(object):
    """
    A dispatched request: decoded `content`, resolved `status` tag,
    numeric `code` and the `raw` transport response.
    """

    def __init__(self, content, status, code, url, raw):
        self.content = content
        self.status = status
        self.code = code
        self.url = url
        self.raw = raw

    def __repr__(self):
        return '<Response %d %s %s>' % (self.code, self.status, self.url)


def route(response, outcomes, unexpected=None):
    """
    Pick the handler for `response` from `outcomes` and return its
    result.

    `outcomes` maps an outcome tag, or a tuple/set of tags, to a
    callable taking the response. When no key matches, `unexpected` is
    called if given, otherwise UnexpectedResponse is raised.
    Keys are tried in order and the first one holding the tag wins.
    """
    for tags, handler in outcomes.items():
        if isinstance(tags, str):
            tags = (tags,)
        if response.status in tags:
            return handler(response)

    if unexpected is not None:
        return unexpected(response)

    log.warning('Unexpected response from CouchDB: %d (%s) for %s',
                response.code, response.status, response.url)
    raise UnexpectedResponse(response.code, response.raw)


class _Immutable(object):
    __slots__ = ()

    def __setattr__(self, name, value):
        raise AttributeError('%s is immutable' % type(self).__name__)

    def __delattr__(self, name):
        raise AttributeError('%s is immutable' % type(self).__name__)

    def _init(self, **fields):
        for name, value in fields.items():
            object.__setattr__(self, name, value)


class Server(_Immutable):
    __slots__ = ('host', 'port', 'username', 'password', 'codec',
                 'fetch_args')

    def __init__(self, host='localhost', port=DEFAULT_PORT, username=None,
                 password=None, codec=None, fetch_args=None):
        if codec is None:
            codec = JsonCodec()
        self._init(
            host=host,
            port=int(port),
            username=username,
            password=password,
            codec=codec,
            # Extra arguments for every tornado HTTPRequest, e.g.
            # request_timeout or validate_cert
            fetch_args=MappingProxyType(dict(fetch_args or {})),
            )

    def __repr__(self):
        return '<Server %s>' % self.base_url()

    def __reduce__(self):
        return (Server, (self.host, self.port, self.username, self.password,
                         self.codec, dict(self.fetch_args)))

    def base_url(self):
        return 'http://%s:%d/' % (self.host, self.port)

    def auth_header(self):
        if self.username is None:
            return None
        return (self.username, self.password or '')

    def dispatch(self, path, method='GET', body=None, query=None,
                 headers=None):
        url = self.base_url() + path
        if query:
            url = '%s?%s' % (url, urlencode(query))

        request_headers = HTTPHeaders({
            'Accept': self.codec.content_type,
            'Content-Type': self.codec.content_type,
            })
        if headers:
            request_headers.update(headers)

        if body is not None:
            body = self.codec.encode(body)
        elif method in ('PUT', 'POST'):
            body = b''

        fetch_args = dict(self.fetch_args)
        credentials = self.auth_header()
        if credentials is not None:
            fetch_args['auth_username'], fetch_args['auth_password'] = \
                credentials
            fetch_args['auth_mode'] = 'basic'

        request = HTTPRequest(
            url,
            method=method,
            body=body,
            headers=request_headers,
            allow_nonstandard_methods=True,
            **fetch_args
            )

        log.debug('Fetching %s %s', method, url)
        client = HTTPClient()
        try:
            raw = client.fetch(request, raise_error=False)
        finally:
            client.close()

        status = resolve_status(raw.code)
        log.debug('%s %s answered %d (%s)', method, url, raw.code, status)
        return Response(
            self.codec.decode(raw.body, raw.code), status, raw.code, url, raw)

    def expect(self, path, outcomes, unexpected=None, **request):
        response = self.dispatch(path, **request)
        return route(response, outcomes, unexpected)

    def database(self, name):
        return Database(self, name)

    def create(self, name):
        db = Database(self, name)

        def _created(response):
            return db

        return self.expect(db.path(), {
            CREATED: _created,
            PRECONDITION_FAILED: _raiser(DatabaseAlreadyExists, db.uri),
            **_illegal_name(name, db.uri)
            }, method='PUT')

    def connect(self, name):
        db = Database(self, name)

        def _found(response):
            return db

        return self.expect(db.path(), {
            OK: _found,
            NOT_FOUND: _raiser(DatabaseNotFound, db.uri),
            **_illegal_name(name, db.uri)
            })

    def ensure(self, name):
        """
        Return `(database, created)`, creating the database unless it
        already exists.
        """
        try:
            return self.create(name), True
        except DatabaseAlreadyExists:
            log.debug('Database %r exists, connecting instead', name)
            return self.connect(name), False

    def delete(self, database):
        if not isinstance(database, Database):
            database = Database(self, database)

        return self.expect(database.path(), {
            OK: _nothing,
            NOT_FOUND: _raiser(DatabaseNotFound, database.uri),
            **_illegal_name(database.name, database.uri)
            }, method='DELETE')

    def list(self):
        def _databases(response):
            return [Database(self, name) for name in response.content]

        return self.expect('_all_dbs', {OK: _databases})

    def config(self):
        return self.expect('_config', {OK: _content})

    def stats(self):
        return self.expect('_stats', {OK: _content})

    def active_tasks(self):
        return self.expect('_active_tasks', {OK: _content})

    def uuids(self, count=1):
        def _uuids(response):
            return response.content['uuids']

        return self.expect('_uuids', {OK: _uuids}, query={'count': count})

    def replicate(self, source, target, create_target=False,
                  continuous=False):
        body = {'source': source, 'target': target}
        if create_target:
            body['create_target'] = True
        if continuous:
            body['continuous'] = True

        return self.expect('_replicate', {(OK, ACCEPTED): _content},
                           method='POST', body=body)


class Database(_Immutable):
    __slots__ = ('server', 'name')

    def __init__(self, server, name):
        self._init(server=server, name=name)

    def __repr__(self):
        return '<Database %s>' % self.uri

    def __reduce__(self):
        return (Database, (self.server, self.name))

    def __eq__(self, other):
        if not isinstance(other, Database):
            return NotImplemented
        return (self.name == other.name and
                self.server.base_url() == other.server.base_url())

    def __hash__(self):
        return hash((self.server.base_url(), self.name))

    @property
    def uri(self):
        return self.server.base_url() + quote(self.name, safe='')

    def path(self, *parts):
        return '%s/%s' % (quote(self.name, safe=''), '/'.join(parts))

    def _doc_path(self, doc_id):
        return self.path(quote(doc_id, safe=''))

    def _expect(self, path, outcomes, **request):
        return self.server.expect(path, outcomes, **request)

    def info(self):
        return self._expect(self.path(), {
            OK: _content,
            NOT_FOUND: _raiser(DatabaseNotFound, self.uri),
            **_illegal_name(self.name, self.uri)
            })

    def compact(self):
        def _started(response):
            return True

        return self._expect(self.path('_compact'), {
            ACCEPTED: _started,
            NOT_FOUND: _raiser(DatabaseNotFound, self.uri),
            **_illegal_name(self.name, self.uri)
            }, method='POST')

    def changes(self, **params):
        if params.get('feed', 'normal') != 'normal':
            raise ValueError('Only the normal changes feed is supported')

        def _changes(response):
            log.debug('Changes feed response: %s', response)
            return ChangesResult(response.content)

        return self._expect(self.path('_changes'), {
            OK: _changes,
            NOT_FOUND: _raiser(DatabaseNotFound, self.uri),
            **_illegal_name(self.name, self.uri)
            }, query=_plain_params(params))

    def get(self, doc_id):
        def _found(response):
            return Document(response.content)

        return self._expect(self._doc_path(doc_id), {
            OK: _found,
            NOT_FOUND: _raiser(DocumentNotFound, doc_id, self.name),
            BAD_REQUEST: _raiser(InvalidName, doc_id, self.uri),
            **_illegal_name(self.name, self.uri)
            })

    def put(self, doc_id, data, rev=None):
        doc = data if isinstance(data, Document) else Document(data)
        if rev is None and doc.id in (None, doc_id):
            rev = doc.rev

        body = doc.raw()
        body.pop('_id', None)
        body.pop('_rev', None)
        if rev is not None:
            body['_rev'] = rev

        return self._expect(self._doc_path(doc_id), {
            (CREATED, ACCEPTED): doc._stored,
            CONFLICT: _raiser(DocumentConflict, data, doc_id),
            BAD_REQUEST: _raiser(InvalidName, doc_id, self.uri),
            NOT_FOUND: _raiser(DatabaseNotFound, self.uri),
            **_illegal_name(self.name, self.uri)
            }, method='PUT', body=body)

    def post(self, data):
        doc = data if isinstance(data, Document) else Document(data)

        return self._expect(self.path(), {
            (CREATED, ACCEPTED): doc._stored,
            CONFLICT: _raiser(DocumentConflict, data, doc.id),
            BAD_REQUEST: _raiser(InvalidName, doc.id, self.uri),
            NOT_FOUND: _raiser(DatabaseNotFound, self.uri),
            **_illegal_name(self.name, self.uri)
            }, method='POST', body=doc.raw())

    def delete(self, doc, rev=None):
        """
        Delete a document by id, or a Document carrying its own
        revision. Returns the revision of the deletion.
        """
        if isinstance(doc, Document):
            doc_id = doc.id
            if doc_id is None:
                raise ValueError('Document has no id')
            if rev is None:
                rev = doc.rev
        else:
            doc_id = doc

        def _deleted(response):
            return response.content['rev']

        # Without a revision the server answers with a conflict
        query = {'rev': rev} if rev is not None else None
        return self._expect(self._doc_path(doc_id), {
            (OK, ACCEPTED): _deleted,
            CONFLICT: _raiser(DocumentConflict, doc, doc_id),
            NOT_FOUND: _raiser(DocumentNotFound, doc_id, self.name),
            BAD_REQUEST: _raiser(InvalidName, doc_id, self.uri),
            **_illegal_name(self.name, self.uri)
            }, method='DELETE', query=query)

    def copy(self, doc, new_id, rev=None):
        """
        Copy a document to `new_id`. Overwriting an existing target
        needs its current revision in `rev`. Returns the revision of
        the copy.
        """
        doc_id = doc.id if isinstance(doc, Document) else doc

        destination = quote(new_id, safe='')
        if rev is not None:
            destination = '%s?rev=%s' % (destination, quote(rev, safe=''))

        def _copied(response):
            return response.content['rev']

        return self._expect(self._doc_path(doc_id), {
            (CREATED, ACCEPTED): _copied,
            CONFLICT: _raiser(DocumentConflict, doc, new_id),
            NOT_FOUND: _raiser(DocumentNotFound, doc_id, self.name),
            BAD_REQUEST: _raiser(InvalidName, doc_id, self.uri),
            **_illegal_name(self.name, self.uri)
            }, method='COPY', headers={'Destination': destination})

    def batch_get(self, doc_ids):
        """
        Fetch many documents in one request. The result has one entry
        per requested id, in order, with None for missing documents.
        """
        def _rows(response):
            result = []
            for row in response.content['rows']:
                doc = row.get('doc')
                result.append(Document(doc) if doc is not None else None)
            return result

        return self._expect(self.path('_all_docs'), {
            OK: _rows,
            NOT_FOUND: _raiser(DatabaseNotFound, self.uri),
            **_illegal_name(self.name, self.uri)
            }, method='POST', query={'include_docs': 'true'},
            body={'keys': list(doc_ids)})

    def all_docs(self, **params):
        def _view(response):
            return ViewResult(response.content)

        return self._expect(self.path('_all_docs'), {
            OK: _view,
            NOT_FOUND: _raiser(DatabaseNotFound, self.uri),
            **_illegal_name(self.name, self.uri)
            }, query=_jsonize_params(params))

    def bulk_docs(self, docs, all_or_nothing=False):
        payload = {'docs': [
            doc.raw() if isinstance(doc, Document) else doc for doc in docs
            ]}
        if all_or_nothing is True:
            payload['all_or_nothing'] = True

        def _bulk(response):
            return BulkResult(response.content)

        return self._expect(self.path('_bulk_docs'), {
            (OK, CREATED, ACCEPTED): _bulk,
            NOT_FOUND: _raiser(DatabaseNotFound, self.uri),
            **_illegal_name(self.name, self.uri)
            }, method='POST', body=payload)


class Document(collections.abc.MutableMapping):
    def __init__(self, data=None, id=None, rev=None):
        self.data = {}
        self.id = None
        self.rev = None
        # Other underscore prefixed fields, like _deleted or _conflicts
        self.meta = {}

        for key, value in (data or {}).items():
            if key == '_id':
                self.id = value
            elif key == '_rev':
                self.rev = value
            elif _reserved(key):
                self.meta[key[1:]] = value
            else:
                self[key] = value

        if id is not None:
            self.id = id
        if rev is not None:
            self.rev = rev

    def __repr__(self):
        return '<Document %r@%s %r>' % (self.id, self.rev, self.data)

    def __len__(self):
        return len(self.data)

    def __iter__(self):
        return iter(self.data)

    def __contains__(self, key):
        return key in self.data

    def __getitem__(self, key):
        return self.data[key]

    def __setitem__(self, key, value):
        if _reserved(key):
            raise KeyError("Keys starting with '_' are reserved for CouchDB")
        self.data[key] = value

    def __delitem__(self, key):
        del self.data[key]

    def raw(self):
        result = {}
        if self.id:
            result['_id'] = self.id
        if self.rev:
            result['_rev'] = self.rev
        for key, value in self.meta.items():
            result['_' + key] = value

        result.update(self.data)
        return result

    def _stored(self, response):
        content = response.content
        return Document(self.raw(), id=content['id'], rev=content['rev'])


class _Rows(collections.abc.Sequence):
    """Read-only sequence over the list kept in `_items`"""
    _items = ()

    def __len__(self):
        return len(self._items)

    def __getitem__(self, key):
        return self._items[key]


class ChangesResult(_Rows):
    def __init__(self, result):
        self._items = result['results']
        self.last_seq = result.get('last_seq')


class BulkObject(dict):
    """Outcome of one document in a bulk update"""
    error = False


class BulkError(BulkObject):
    error = True

    @property
    def error_type(self):
        return self['error']

    @property
    def reason(self):
        return self.get('reason')


class BulkResult(_Rows):
    def __init__(self, result):
        self._items = [
            BulkError(line) if 'error' in line else BulkObject(line)
            for line in result
            ]


class ViewResult(_Rows):
    def __init__(self, result):
        self._items = result['rows']
        self.total_rows = result.get('total_rows', len(self._items))
        self.offset = result.get('offset', 0)
