# utils/pages.py
"""
HTML pages for the storefront and the printable admin certificates.
"""
from html import escape
from typing import Optional

import config
from models import Order

STYLES = """
    <style>
        body { background: #050505; color: white; font-family: sans-serif; text-align: center; padding-top: 100px; }
        .logo { font-size: 2.5rem; font-weight: bold; color: #00f2ff; text-shadow: 0 0 10px #00f2ff; margin-bottom: 20px; }
        .btn { display: inline-block; color: #00f2ff; border: 1px solid #00f2ff; padding: 12px 30px; text-decoration: none; border-radius: 50px; margin-top: 30px; font-weight: bold; background: none; cursor: pointer; }
        .btn:hover { background: #00f2ff; color: #000; box-shadow: 0 0 20px #00f2ff; }
        .status-card { background: #111; padding: 40px; border-radius: 20px; display: inline-block; border: 1px solid #333; min-width: 360px; }
        input { display: block; margin: 10px auto; padding: 10px; width: 280px; border-radius: 8px; border: 1px solid #333; background: #000; color: white; }
        table { margin: 20px auto; text-align: left; border-collapse: collapse; }
        td { padding: 6px 14px; border-bottom: 1px solid #222; }
        .error { color: #ff4444; }
        @media print { body { background: white; color: black; padding-top: 20px; } .status-card { border: 2px solid black; } .no-print { display: none; } }
    </style>
"""


def _page(body: str, title: Optional[str] = None) -> str:
     title = escape(title or config.STORE_NAME)
     return f"""<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>{title}</title>{STYLES}</head>
<body><div class="status-card"><div class="logo">{escape(config.STORE_NAME)}</div>{body}</div></body></html>"""


def _rows(pairs) -> str:
     return "".join(
          f"<tr><td>{escape(label)}</td><td>{escape(str(value)) if value not in (None, '') else '-'}</td></tr>"
          for label, value in pairs
     )


def home_page() -> str:
     return _page("""
        <h1>Gaming credits, delivered fast</h1>
        <p>Choose an amount and pay with USDT.</p>
        <a href="/checkout/100" class="btn">Buy 100 ₪</a>
        <a href="/checkout/250" class="btn">Buy 250 ₪</a>
        <p><a href="/terms" style="color:#888">Terms</a></p>
    """)


def terms_page() -> str:
     return _page("""
        <h1>Terms of Service</h1>
        <p>Credits are delivered digitally to the email address given at checkout.</p>
        <p>Payments are processed in cryptocurrency by a third-party processor and are final.</p>
        <a href="/" class="btn">Back to Store</a>
    """)


def success_page(order_id: Optional[str] = None) -> str:
     receipt = f'<a href="/receipt?order_id={escape(order_id)}" class="btn">View Receipt</a>' if order_id else ""
     return _page(f"""
        <h1 style="color:#00ff88;">✅ Payment Successful!</h1>
        <p>Your credits are being processed. Check your email for confirmation.</p>
        {receipt}
        <a href="/" class="btn">Back to Store</a>
    """)


def cancel_page() -> str:
     return _page("""
        <h1 style="color:#ff4444;">❌ Payment Cancelled</h1>
        <p>The transaction was not completed. You can try again at any time.</p>
        <a href="/" class="btn" style="color:#ff4444; border-color:#ff4444;">Back to Store</a>
    """)


def error_page(message: str) -> str:
     return _page(f"""
        <h1 class="error">Request Failed</h1>
        <p>{escape(message)}</p>
        <a href="/" class="btn">Back to Store</a>
    """)


def checkout_page(amount, currency: str, product_name: str) -> str:
     field = "totalAmount"
     return _page(f"""
        <h1>Checkout</h1>
        <p>{escape(product_name)}: <b>{escape(str(amount))} {escape(currency)}</b></p>
        <form method="post" action="/process-payment">
            <input type="hidden" name="{field}" value="{escape(str(amount))}">
            <input type="hidden" name="currency" value="{escape(currency)}">
            <input type="hidden" name="productName" value="{escape(product_name)}">
            <input type="text" name="name" placeholder="Full name" required>
            <input type="email" name="email" placeholder="Email" required>
            <button type="submit" class="btn">Pay with USDT</button>
        </form>
    """, title="Checkout")


def receipt_page(order: Order) -> str:
     rows = _rows([
          ("Order", order.order_id),
          ("Product", order.product_name),
          ("Amount", f"{order.amount} {order.currency}"),
          ("Status", order.status),
          ("Date", order.created_at),
     ])
     return _page(f"""
        <h1>Receipt</h1>
        <table>{rows}</table>
        <a href="/" class="btn">Back to Store</a>
    """, title=f"Receipt {order.order_id}")


def proof_page(order: Order) -> str:
     """Proof-of-payment certificate."""
     image = ""
     if order.delivery_proof_image:
          image = f'<p><img src="{escape(order.delivery_proof_image)}" style="max-width:420px"></p>'
     rows = _rows([
          ("Order", order.order_id),
          ("Payment reference", order.payment_reference),
          ("Amount", f"{order.amount} {order.currency}"),
          ("Settled (USD)", order.amount_usd),
          ("TXID", order.txid),
          ("Customer", order.customer_name),
          ("Issued", order.created_at),
     ])
     return _page(f"""
        <h1>Proof of Payment</h1>
        <table>{rows}</table>
        {image}
        <button class="btn no-print" onclick="window.print()">Print</button>
    """, title=f"Proof {order.order_id}")


def pod_page(order: Order) -> str:
     """Proof-of-delivery certificate."""
     rows = _rows([
          ("Order", order.order_id),
          ("Product", order.product_name),
          ("Customer", order.customer_name),
          ("Email", order.customer_email),
          ("Status", order.status),
          ("Fulfillment ID", order.fulfillment_id),
          ("Delivery node", order.delivery_node),
          ("Executed at", order.execution_time),
     ])
     return _page(f"""
        <h1>Certificate of Delivery</h1>
        <table>{rows}</table>
        <button class="btn no-print" onclick="window.print()">Print</button>
    """, title=f"Delivery {order.order_id}")
