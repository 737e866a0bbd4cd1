#!/usr/bin/env python3
"""
ESP Relay - Control page

The page is a plain controller: it opens its own WebSocket to the relay and
sends "start" / "stop" like any other peer.
"""

import html
import json
from string import Template

PAGE_TITLE = "askLou.io Timer Control"

_PAGE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>$title</title>
  <style>
    body {
      font-family: Arial, sans-serif;
      text-align: center;
      background-color: #DEF5E5;
      color: #1F4D3A;
    }
    .header { font-size: 2em; margin: 20px; }
    .button, .copy-btn {
      display: inline-block;
      padding: 10px 20px;
      background-color: #3BB77E;
      color: white;
      border: none;
      border-radius: 5px;
      cursor: pointer;
      margin: 10px;
    }
    .button:hover, .copy-btn:hover { background-color: #2a885f; }
    .ws-address { font-size: 1.2em; margin: 20px; font-weight: bold; }
    .input-box {
      padding: 10px;
      font-size: 1em;
      width: 80%;
      max-width: 400px;
      margin: 10px auto;
    }
  </style>
</head>
<body>
  <h1 class="header">$title</h1>

  <div class="ws-address">
    WebSocket Address:
    <input class="input-box" id="ws-address" value="$ws_url_attr" readonly />
    <button class="copy-btn" onclick="copyToClipboard()">Copy</button>
  </div>

  <p id="status">Status: Not connected</p>

  <button class="button" onclick="sendCommand('start')">Start Timer</button>
  <button class="button" onclick="sendCommand('stop')">Stop Timer</button>

  <script>
    const ws = new WebSocket($ws_url_js);
    const status = document.getElementById("status");

    ws.onopen = () => { status.innerText = "Status: Connected"; };
    ws.onmessage = (event) => { status.innerText = "Status: " + event.data; };
    ws.onclose = () => { status.innerText = "Status: Disconnected"; };

    function sendCommand(command) {
      ws.send(command);
    }

    function copyToClipboard() {
      const input = document.getElementById("ws-address");
      input.select();
      input.setSelectionRange(0, 99999);
      navigator.clipboard.writeText(input.value);
      alert("WebSocket address copied to clipboard!");
    }
  </script>
</body>
</html>
""")


def render_control_page(ws_url: str, title: str = PAGE_TITLE) -> str:
    # "<" escaped so the literal cannot end the script block
    ws_url_js = json.dumps(ws_url).replace("<", "\\u003c")
    return _PAGE.substitute(
        ws_url_attr=html.escape(ws_url, quote=True),
        ws_url_js=ws_url_js,
        title=html.escape(title),
    )
