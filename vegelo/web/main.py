from __future__ import annotations

import base64
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse

from vegelo.app import Storefront
from vegelo.constants import Category, Language, OrderStatus, PaymentMethod, Theme, Unit
from vegelo.db import codec
from vegelo.errors import StorageError, ValidationError
from vegelo.services.admin import check_password, dashboard, new_product_id
from vegelo.services.invoice_pdf import generate_invoice_pdf
from vegelo.services.pricing import cart_total, check_quantity, line_total, step_quantity
from vegelo.store import actions
from vegelo.store.models import CartItem, Customer, Order, Product
from vegelo.store.selectors import (
    admin_orders,
    cart_item_count,
    favorite_products,
    group_by_category,
    orders_newest_first,
    search_products,
)

app = FastAPI(title="Vegelo Storefront")


@app.on_event("startup")
async def _startup() -> None:
    if getattr(app.state, "storefront", None) is None:
        app.state.storefront = Storefront.create()
    await app.state.storefront.start()


@app.on_event("shutdown")
async def _shutdown() -> None:
    sf = getattr(app.state, "storefront", None)
    if sf is not None:
        await sf.close()


def _sf(request: Request) -> Storefront:
    return request.app.state.storefront


def _require_admin(x_admin_password: str = Header("")) -> None:
    if not check_password(x_admin_password):
        raise HTTPException(status_code=401, detail="wrong admin password")


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "fields": list(exc.fields)})


@app.exception_handler(StorageError)
async def _storage_error(request: Request, exc: StorageError):
    return JSONResponse(status_code=507, content={"detail": str(exc), "retryable": exc.retryable})


# ---------------- json ----------------

def _product_json(p: Product) -> Dict[str, Any]:
    return codec.product_to_dict(p)


def _cart_json(sf: Storefront) -> Dict[str, Any]:
    cart = sf.state.cart
    return {
        "items": [dict(codec.cart_item_to_dict(it), line_total=line_total(it)) for it in cart],
        "count": cart_item_count(cart),
        "total": cart_total(cart),
    }


def _order_json(o: Order, with_proof: bool = False) -> Dict[str, Any]:
    d = codec.order_to_dict(o)
    if not with_proof:
        d.pop("payment_proof")
        d["has_payment_proof"] = bool(o.payment_proof)
    return d


def _receipt_json(receipt) -> Optional[Dict[str, Any]]:
    if receipt is None:
        return None
    return {
        "action": receipt.action,
        "status": receipt.status.value,
        "applied": receipt.applied,
        "transport_error": receipt.transport_error,
    }


async def _data_url(upload: Optional[UploadFile]) -> Optional[str]:
    if upload is None:
        return None
    raw = await upload.read()
    if not raw:
        return None
    mime = upload.content_type or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


def _get_product_or_404(sf: Storefront, product_id: str) -> Product:
    p = sf.state.find_product(codec.normalize_id(product_id))
    if p is None:
        raise HTTPException(status_code=404, detail="product not found")
    return p


@app.get("/api/health")
def health(request: Request):
    sf = _sf(request)
    return {"ok": True, "is_loading": sf.state.is_loading, "remote": sf.remote is not None}


# ---------------- catalog ----------------

@app.get("/api/products")
def products(request: Request, q: str = "", category: Optional[Category] = None):
    rows = search_products(_sf(request).state.products, q)
    if category is not None:
        rows = [p for p in rows if p.category == category]
    return [_product_json(p) for p in rows]


@app.get("/api/products/grouped")
def products_grouped(request: Request, q: str = ""):
    groups = group_by_category(search_products(_sf(request).state.products, q))
    return {c.value: [_product_json(p) for p in items] for c, items in groups.items()}


@app.get("/api/products/{product_id}")
def product_detail(request: Request, product_id: str):
    sf = _sf(request)
    p = _get_product_or_404(sf, product_id)
    return dict(_product_json(p), favorite=p.id in sf.state.favorites)


# ---------------- favorites / profile ----------------

@app.get("/api/favorites")
def favorites(request: Request):
    return [_product_json(p) for p in favorite_products(_sf(request).state)]


@app.post("/api/favorites/{product_id}")
def favorites_toggle(request: Request, product_id: str):
    sf = _sf(request)
    pid = codec.normalize_id(product_id)
    sf.store.dispatch(actions.ToggleFavorite(pid))
    return {"id": pid, "favorite": pid in sf.state.favorites}


@app.get("/api/profile")
def profile(request: Request):
    return codec.customer_to_dict(_sf(request).state.profile)


@app.put("/api/profile")
def profile_save(
    request: Request,
    name: str = Form(""),
    address: str = Form(""),
    phone: str = Form(""),
):
    sf = _sf(request)
    sf.store.dispatch(actions.SetProfile(Customer(name=name.strip(), address=address.strip(), phone=phone.strip())))
    return codec.customer_to_dict(sf.state.profile)


@app.post("/api/preferences")
def preferences(
    request: Request,
    language: Optional[Language] = Form(None),
    theme: Optional[Theme] = Form(None),
):
    sf = _sf(request)
    if language is not None:
        sf.store.dispatch(actions.SetLanguage(language))
    if theme is not None:
        sf.store.dispatch(actions.SetTheme(theme))
    return {"language": sf.state.language.value, "theme": sf.state.theme.value}


# ---------------- cart ----------------

@app.get("/api/cart")
def cart(request: Request):
    return _cart_json(_sf(request))


@app.post("/api/cart/add")
def cart_add(request: Request, product_id: str = Form(...), quantity: float = Form(1)):
    sf = _sf(request)
    p = _get_product_or_404(sf, product_id)
    check_quantity(quantity, p.unit)
    sf.store.dispatch(actions.AddToCart(p, quantity))
    return _cart_json(sf)


def _get_cart_item_or_404(sf: Storefront, product_id: str) -> CartItem:
    pid = codec.normalize_id(product_id)
    for it in sf.state.cart:
        if it.id == pid:
            return it
    raise HTTPException(status_code=404, detail="product not in cart")


@app.post("/api/cart/update")
def cart_update(request: Request, product_id: str = Form(...), quantity: float = Form(...)):
    sf = _sf(request)
    item = _get_cart_item_or_404(sf, product_id)
    check_quantity(quantity, item.unit, allow_zero=True)
    sf.store.dispatch(actions.UpdateQuantity(item.id, quantity))
    return _cart_json(sf)


@app.post("/api/cart/step")
def cart_step(request: Request, product_id: str = Form(...), direction: int = Form(1)):
    # кнопки +/-: шаг 0.25 кг или 1 шт, не ниже минимума
    if direction not in (1, -1):
        raise HTTPException(status_code=422, detail="direction must be 1 or -1")
    sf = _sf(request)
    item = _get_cart_item_or_404(sf, product_id)
    sf.store.dispatch(actions.UpdateQuantity(item.id, step_quantity(item.quantity, item.unit, direction)))
    return _cart_json(sf)


@app.post("/api/cart/remove")
def cart_remove(request: Request, product_id: str = Form(...)):
    sf = _sf(request)
    sf.store.dispatch(actions.RemoveFromCart(codec.normalize_id(product_id)))
    return _cart_json(sf)


@app.post("/api/cart/clear")
def cart_clear(request: Request):
    sf = _sf(request)
    sf.store.dispatch(actions.ClearCart())
    return _cart_json(sf)


# ---------------- checkout / orders ----------------

@app.post("/api/checkout")
async def checkout(
    request: Request,
    name: str = Form(""),
    address: str = Form(""),
    phone: str = Form(""),
    payment_method: PaymentMethod = Form(PaymentMethod.EASYPAISA),
    payment_proof: Optional[UploadFile] = File(None),
):
    sf = _sf(request)
    customer = Customer(name=name.strip(), address=address.strip(), phone=phone.strip())
    order, receipt = await sf.checkout(customer, payment_method, await _data_url(payment_proof))
    return {"order": _order_json(order), "remote": _receipt_json(receipt)}


@app.get("/api/orders")
def orders(request: Request):
    return [_order_json(o) for o in orders_newest_first(_sf(request).state.orders)]


# ---------------- admin ----------------

@app.post("/api/admin/login")
def admin_login(password: str = Form("")):
    if not check_password(password):
        raise HTTPException(status_code=401, detail="wrong admin password")
    return {"ok": True}


@app.get("/api/admin/dashboard", dependencies=[Depends(_require_admin)])
def admin_dashboard(request: Request):
    return dashboard(_sf(request).state)


@app.get("/api/admin/orders", dependencies=[Depends(_require_admin)])
def admin_orders_list(request: Request):
    return [_order_json(o, with_proof=True) for o in orders_newest_first(admin_orders(_sf(request).state))]


@app.post("/api/admin/orders/{order_id}/status", dependencies=[Depends(_require_admin)])
async def admin_order_status(request: Request, order_id: str, status: OrderStatus = Form(...)):
    sf = _sf(request)
    if sf.state.find_order(order_id) is None:
        raise HTTPException(status_code=404, detail="order not found")
    receipt = await sf.admin.update_order_status(order_id, status)
    return {"order": _order_json(sf.state.find_order(order_id)), "remote": _receipt_json(receipt)}


@app.get("/api/admin/orders/{order_id}/invoice", dependencies=[Depends(_require_admin)])
def admin_order_invoice(request: Request, order_id: str):
    order = _sf(request).state.find_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="order not found")
    path = generate_invoice_pdf(order)
    return FileResponse(path, filename=f"invoice_{order_id}.pdf", media_type="application/pdf")


async def _product_from_form(
    product_id,
    name: str,
    price: float,
    category: Category,
    unit: Unit,
    description: str,
    image_url: str,
    image: Optional[UploadFile],
) -> Product:
    return Product(
        id=product_id,
        name=name.strip(),
        price=float(price),
        image=(await _data_url(image)) or image_url or "https://picsum.photos/400/300",
        category=category,
        unit=unit,
        description=description.strip() or None,
    )


@app.post("/api/admin/products", dependencies=[Depends(_require_admin)])
async def admin_product_add(
    request: Request,
    name: str = Form(...),
    price: float = Form(...),
    category: Category = Form(Category.VEGETABLES),
    unit: Unit = Form(Unit.KG),
    description: str = Form(""),
    image_url: str = Form(""),
    image: Optional[UploadFile] = File(None),
):
    sf = _sf(request)
    product = await _product_from_form(new_product_id(), name, price, category, unit, description, image_url, image)
    receipt = await sf.admin.add_product(product)
    return {"product": _product_json(product), "remote": _receipt_json(receipt)}


@app.put("/api/admin/products/{product_id}", dependencies=[Depends(_require_admin)])
async def admin_product_update(
    request: Request,
    product_id: str,
    name: str = Form(...),
    price: float = Form(...),
    category: Category = Form(...),
    unit: Unit = Form(...),
    description: str = Form(""),
    image_url: str = Form(""),
    image: Optional[UploadFile] = File(None),
):
    sf = _sf(request)
    current = _get_product_or_404(sf, product_id)
    product = await _product_from_form(
        current.id, name, price, category, unit, description, image_url or current.image, image
    )
    receipt = await sf.admin.update_product(product)
    return {"product": _product_json(product), "remote": _receipt_json(receipt)}


@app.delete("/api/admin/products/{product_id}", dependencies=[Depends(_require_admin)])
async def admin_product_delete(request: Request, product_id: str):
    sf = _sf(request)
    current = _get_product_or_404(sf, product_id)
    receipt = await sf.admin.delete_product(current.id)
    return {"deleted": current.id, "remote": _receipt_json(receipt)}


@app.post("/api/admin/sync", dependencies=[Depends(_require_admin)])
async def admin_sync(request: Request):
    sf = _sf(request)
    state = await sf.sync()
    return {"synced": state is not None, "is_loading": sf.state.is_loading}
