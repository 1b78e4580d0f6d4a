"""Anti-detection patches applied to every document the browser loads."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("ghast_ctl.stealth")

STEALTH_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Chromium flags that leak automation detection signals.
STEALTH_IGNORED_ARGS = [
    "--enable-automation",
    "--disable-popup-blocking",
    "--disable-component-update",
    "--disable-default-apps",
    "--disable-extensions",
    "--disable-background-networking",
]

STEALTH_SCRIPT = (
    "(function(){"
    # navigator.webdriver
    "try{delete Navigator.prototype.webdriver;}catch(e){}"
    "Object.defineProperty(Navigator.prototype,'webdriver',"
    "{get:function(){return undefined;},configurable:true});"
    # plugins
    "var specs=["
    "['Chrome PDF Plugin','internal-pdf-viewer','Portable Document Format'],"
    "['Chrome PDF Viewer','mhjfbmdgcfjbbpaeojofohoefgiehjai',''],"
    "['Native Client','internal-nacl-plugin','']];"
    "var mk=function(){"
    "var arr=Object.create(PluginArray.prototype);"
    "specs.forEach(function(s,i){"
    "var p=Object.create(Plugin.prototype);"
    "Object.defineProperty(p,'name',{value:s[0]});"
    "Object.defineProperty(p,'filename',{value:s[1]});"
    "Object.defineProperty(p,'description',{value:s[2]});"
    "Object.defineProperty(p,'length',{value:1});"
    "Object.defineProperty(arr,i,{value:p,enumerable:true});"
    "});"
    "Object.defineProperty(arr,'length',{value:specs.length});"
    "return arr;};"
    "try{Object.defineProperty(navigator,'plugins',{get:mk,configurable:true});}catch(e){}"
    # window.chrome
    "window.chrome=window.chrome||{};"
    "window.chrome.runtime=window.chrome.runtime||{connect:function(){},sendMessage:function(){}};"
    "window.chrome.app=window.chrome.app||{isInstalled:false};"
    "window.chrome.csi=window.chrome.csi||function(){return{startE:Date.now()};};"
    "window.chrome.loadTimes=window.chrome.loadTimes||function(){return{commitLoadTime:Date.now()/1000};};"
    # navigator / screen properties
    "var nav={languages:['en-US','en'],language:'en-US',platform:'MacIntel',"
    "hardwareConcurrency:8,deviceMemory:8,maxTouchPoints:0,vendor:'Google Inc.'};"
    "Object.keys(nav).forEach(function(k){"
    "try{Object.defineProperty(navigator,k,{get:function(){return nav[k];},configurable:true});}catch(e){}"
    "});"
    "var scr={width:1920,height:1080,availWidth:1920,availHeight:1055,colorDepth:24};"
    "Object.keys(scr).forEach(function(k){"
    "try{Object.defineProperty(screen,k,{get:function(){return scr[k];},configurable:true});}catch(e){}"
    "});"
    "try{Object.defineProperty(window,'outerWidth',{get:function(){return 1920;},configurable:true});}catch(e){}"
    "try{Object.defineProperty(window,'outerHeight',{get:function(){return 1080;},configurable:true});}catch(e){}"
    # WebGL vendor / renderer
    "var G=WebGLRenderingContext.prototype;"
    "var orig=G.getParameter;"
    "G.getParameter=function(p){"
    "if(p===37445)return'Intel Inc.';"
    "if(p===37446)return'Intel Iris OpenGL Engine';"
    "return orig.call(this,p);};"
    "})();"
)


def inject_script_tag(body: str, script: str = STEALTH_SCRIPT) -> str:
    """Insert *script* before the first ``<script>`` or just inside ``<head>``.

    Returns *body* unchanged when neither is present.
    """
    script_tag = f"<script>{script}</script>"
    lower = body.lower()
    idx = lower.find("<script")
    if idx == -1:
        idx = lower.find("<head")
        if idx != -1:
            idx = lower.find(">", idx) + 1
    if idx > 0:
        return body[:idx] + script_tag + body[idx:]
    return body


async def install_stealth(context: Any) -> None:
    """Inject the evasion script into HTML documents via a context route.

    Route-based injection avoids ``add_init_script``, which breaks DNS
    resolution under patchright.
    """
    logger.debug("Installing stealth evasions via route injection")

    async def _inject_route(route: Any) -> None:
        if route.request.resource_type != "document":
            await route.continue_()
            return
        try:
            response = await route.fetch()
            content_type = response.headers.get("content-type", "")
            if "text/html" in content_type:
                body = inject_script_tag(await response.text())
                await route.fulfill(response=response, body=body)
            else:
                await route.fulfill(response=response)
        except Exception:
            await route.continue_()

    await context.route("**/*", _inject_route)
