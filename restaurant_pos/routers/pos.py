from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.orm import Session

from restaurant_pos.db import get_db
from restaurant_pos.dependencies import get_templates, to_http_error
from restaurant_pos.schemas import CheckoutRequest
from restaurant_pos.services.catalog_service import group_by_category, list_catalog
from restaurant_pos.services.checkout_service import get_order, place_order
from restaurant_pos.services.order_builder import build_order
from restaurant_pos.services.receipt_service import receipt_context, receipt_from_order, render_receipt_pdf

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/pos', tags=['pos'])


@router.get('/catalog')
def catalog(db: Session = Depends(get_db)):
    grouped = group_by_category(list_catalog(db))
    return {
        'categories': list(grouped.keys()),
        'products_by_category': {
            category: [product.as_dict() for product in products] for category, products in grouped.items()
        },
    }


@router.post('/checkout', status_code=status.HTTP_201_CREATED)
def checkout(payload: CheckoutRequest, db: Session = Depends(get_db)):
    try:
        builder = build_order(db, [(item.product_id, item.quantity) for item in payload.items])
        placed = place_order(db, builder=builder)
    except (ValueError, LookupError) as exc:
        db.rollback()
        logger.warning('checkout rejected: %s', exc)
        raise to_http_error(exc) from exc
    db.commit()

    order = placed.order
    return {
        'order_id': order.id,
        'total': order.total,
        'items': order.items,
        'created_at': order.created_at,
        'receipt_url': f'/pos/orders/{order.id}/receipt',
        'receipt_pdf_url': f'/pos/orders/{order.id}/receipt.pdf',
        'session': {
            'id': placed.session.id,
            'total_orders': placed.session.total_orders,
            'total_sales': placed.session.total_sales,
        },
        'stock_after': placed.stock_after,
    }


def _load_order(db: Session, order_id: int):
    try:
        return get_order(db, order_id=order_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get('/orders/{order_id}')
def order_detail(order_id: int, db: Session = Depends(get_db)):
    order = _load_order(db, order_id)
    return {
        'id': order.id,
        'cash_session_id': order.cash_session_id,
        'items': order.items,
        'total': order.total,
        'created_at': order.created_at,
    }


@router.get('/orders/{order_id}/receipt', response_class=HTMLResponse)
def order_receipt(order_id: int, request: Request, db: Session = Depends(get_db)):
    order = _load_order(db, order_id)
    return get_templates(request).TemplateResponse(
        request,
        'receipt.html',
        receipt_context(receipt_from_order(order)),
    )


@router.get('/orders/{order_id}/receipt.pdf')
def order_receipt_pdf(order_id: int, db: Session = Depends(get_db)):
    order = _load_order(db, order_id)
    return Response(
        content=render_receipt_pdf(receipt_from_order(order)),
        media_type='application/pdf',
        headers={'Content-Disposition': f'attachment; filename="receipt-{order.id}.pdf"'},
    )
