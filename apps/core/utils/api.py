import json
import logging
from functools import wraps

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.http import Http404, JsonResponse, QueryDict

logger = logging.getLogger(__name__)


def api_response(message='', *, data=None, status=200, success=True, **extra):
    body = {'success': success, 'message': message}
    if data is not None:
        body['data'] = data
    body.update(extra)
    return JsonResponse(body, status=status, encoder=DjangoJSONEncoder)


def api_error(message, *, status=400, code='validation_error', errors=None, data=None):
    extra = {'code': code}
    if errors:
        extra['errors'] = errors
    return api_response(message, data=data, status=status, success=False, **extra)


def read_payload(request):
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        try:
            payload = json.loads(request.body)
        except (TypeError, ValueError):
            raise ValidationError('Request body must be valid JSON.') from None
        if not isinstance(payload, dict):
            raise ValidationError('Request body must be a JSON object.')
        return payload

    if request.method == 'POST':
        return request.POST.dict()
    return QueryDict(request.body).dict()


def _error_fields(exc):
    if hasattr(exc, 'error_dict'):
        return exc.message_dict
    return {'__all__': exc.messages}


def api_endpoint(methods):
    allowed = {method.upper() for method in methods}

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if request.method not in allowed:
                response = api_error('Method not allowed.', status=405, code='method_not_allowed')
                response['Allow'] = ', '.join(sorted(allowed))
                return response

            try:
                return view_func(request, *args, **kwargs)
            except (Http404, ObjectDoesNotExist) as exc:
                return api_error(str(exc) or 'Not found.', status=404, code='not_found')
            except ValidationError as exc:
                code = getattr(exc, 'error_code', 'validation_error')
                logger.info(f"{request.method} {request.path} rejected ({code}): {'; '.join(exc.messages)}")
                return api_error(
                    '; '.join(exc.messages),
                    code=code,
                    errors=_error_fields(exc),
                    data=getattr(exc, 'summary', None),
                )

        return wrapper

    return decorator
