"""Domain errors and the REST exception handler that renders them"""
import logging

from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('storefront.core')


class StorefrontError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Request could not be processed'

    def __init__(self, message=None, data=None, status_code=None):
        self.message = message or self.default_message
        self.data = data
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class CheckoutError(StorefrontError):
    default_message = 'Checkout failed'


class PriceMismatchError(CheckoutError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Order total changed, please review your order'


class StockError(StorefrontError):
    default_message = 'Insufficient stock'


class VoucherError(StorefrontError):
    default_message = 'Voucher cannot be used'


class OrderStateError(StorefrontError):
    default_message = 'Order status does not allow this action'


class NotFoundError(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


def _first_error_message(detail):
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _first_error_message(value)
            if message:
                return message if key == 'non_field_errors' else f"{key}: {message}"
    elif isinstance(detail, list) and detail:
        return _first_error_message(detail[0])
    elif detail:
        return str(detail)
    return None


def storefront_exception_handler(exc, context):
    """Render every error as {status, message, data|errors}"""
    if isinstance(exc, StorefrontError):
        body = {'status': exc.status_code, 'message': exc.message}
        if exc.data is not None:
            body['data'] = exc.data
        return Response(body, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.error(f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}: {exc}", exc_info=True)
        return Response(
            {'status': 500, 'message': 'An unexpected error occurred'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, ValidationError):
        body = {
            'status': response.status_code,
            'message': _first_error_message(exc.detail) or 'Validation failed',
            'errors': exc.detail,
        }
    elif isinstance(exc, Http404):
        body = {'status': response.status_code, 'message': 'Not found'}
    elif isinstance(exc, APIException):
        body = {'status': response.status_code, 'message': _first_error_message(exc.detail) or str(exc.default_detail)}
    else:
        body = {'status': response.status_code, 'message': str(exc)}
    response.data = body
    return response
