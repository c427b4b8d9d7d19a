import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'cms_api'


class ApiError(Exception):
    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    @property
    def is_unauthorized(self):
        return self.status_code == 401

    @property
    def is_not_found(self):
        return self.status_code == 404


def _error_message(payload, status_code):
    if isinstance(payload, dict):
        for key in ('message', 'error'):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()[:300]
    if status_code:
        return f'The CMS API rejected the request (HTTP {status_code}).'
    return 'The CMS API rejected the request.'


def unwrap_payload(payload):
    """Strip the ``{"success": ..., "data": ...}`` envelope when present."""
    if isinstance(payload, dict) and 'data' in payload and (
        'success' in payload or set(payload) <= {'data', 'message'}
    ):
        return payload['data']
    return payload


class CmsApiClient:
    def __init__(self, base_url, timeout=15.0, verify=True, session=None):
        self.base_url = (base_url or '').rstrip('/')
        self.timeout = timeout
        self.verify = verify
        self.session = session or requests.Session()
        self.session.headers['Accept'] = 'application/json'

    def url_for(self, path):
        return f"{self.base_url}/{str(path).lstrip('/')}"

    def request(self, method, path, token=None, params=None, json=None, data=None, files=None, unwrap=True):
        headers = {}
        if token:
            headers['Authorization'] = f'Bearer {token}'
        try:
            response = self.session.request(
                method,
                self.url_for(path),
                params=params,
                json=json,
                data=data,
                files=files,
                headers=headers,
                timeout=self.timeout,
                verify=self.verify,
            )
        except requests.exceptions.Timeout:
            logger.warning('CMS API timeout: %s %s', method, path)
            raise ApiError('The CMS API did not respond in time. Please retry.')
        except requests.exceptions.RequestException:
            logger.warning('CMS API unreachable: %s %s', method, path, exc_info=True)
            raise ApiError('The CMS API is unreachable right now. Please retry shortly.')

        payload = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = None

        if not response.ok:
            logger.warning('CMS API error: %s %s -> %s', method, path, response.status_code)
            raise ApiError(_error_message(payload, response.status_code), response.status_code, payload)
        if isinstance(payload, dict) and payload.get('success') is False:
            logger.warning('CMS API refused: %s %s -> success=false', method, path)
            raise ApiError(_error_message(payload, None), response.status_code, payload)

        return unwrap_payload(payload) if unwrap else payload

    def get(self, path, **kwargs):
        return self.request('GET', path, **kwargs)

    def post(self, path, **kwargs):
        return self.request('POST', path, **kwargs)

    def put(self, path, **kwargs):
        return self.request('PUT', path, **kwargs)

    def delete(self, path, **kwargs):
        return self.request('DELETE', path, **kwargs)

    def ping(self):
        try:
            response = self.session.head(self.base_url, timeout=self.timeout, verify=self.verify)
        except requests.exceptions.RequestException:
            return False
        return response.status_code < 500


class BoundApi:

    def __init__(self, client, token=None):
        self.client = client
        self.token = token

    def get(self, path, **kwargs):
        return self.client.get(path, token=self.token, **kwargs)

    def post(self, path, **kwargs):
        return self.client.post(path, token=self.token, **kwargs)

    def put(self, path, **kwargs):
        return self.client.put(path, token=self.token, **kwargs)

    def delete(self, path, **kwargs):
        return self.client.delete(path, token=self.token, **kwargs)

    def get_list(self, path, **kwargs):
        result = self.get(path, **kwargs)
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            for key in ('items', 'rows', 'results'):
                if isinstance(result.get(key), list):
                    return result[key]
        return []

    def get_record(self, path, **kwargs):
        result = self.get(path, **kwargs)
        if isinstance(result, list):
            result = result[0] if result else None
        if not isinstance(result, dict):
            raise ApiError('Record not found.', 404)
        return result


def init_api(app, session=None):
    client = CmsApiClient(
        app.config['CMS_API_BASE_URL'],
        timeout=app.config.get('CMS_API_TIMEOUT_SECONDS', 15.0),
        verify=app.config.get('CMS_API_VERIFY_TLS', True),
        session=session,
    )
    app.extensions[EXTENSION_KEY] = client
    return client


def get_client():
    return current_app.extensions[EXTENSION_KEY]


def get_api(token=None):
    if token is None:
        from .auth import current_token
        token = current_token()
    return BoundApi(get_client(), token)
